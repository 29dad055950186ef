"""Reading, validating, creating and writing OpenAPI documents."""

import json
import logging
import os
import stat
import tempfile
from pathlib import Path

import yaml

from route_doc_agent.config import Settings
from route_doc_agent.errors import DocumentCorrupt, InvalidTarget

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)


class _NoAliasDumper(yaml.SafeDumper):
    """Repeated values are written out in full, never as anchors."""

    def ignore_aliases(self, data):
        return True


def resolve_target(target: str | Path, settings: Settings) -> Path:
    """Resolve a repo-relative document path, which must lie under the docs root."""
    target = Path(target)
    if target.is_absolute():
        raise InvalidTarget(f"Target document '{target}' must be repo-relative", context={"target": str(target)})
    if target.suffix.lower() not in YAML_SUFFIXES + JSON_SUFFIXES:
        raise InvalidTarget(
            f"Target document '{target}' must be a .yaml, .yml or .json file",
            context={"target": str(target)},
        )

    repo_root = Path(settings.repo_root).resolve()
    docs_root = (repo_root / settings.docs_root).resolve()
    resolved = (repo_root / target).resolve()
    if docs_root not in resolved.parents:
        raise InvalidTarget(
            f"Target document '{target}' is outside the documentation root '{settings.docs_root}'",
            context={"target": str(target), "docs_root": settings.docs_root},
        )
    return resolved


def detect_format(path: Path) -> str:
    """Return 'json' or 'yaml' based on the file extension."""
    return "json" if path.suffix.lower() in JSON_SUFFIXES else "yaml"


def load_document(path: Path) -> dict | None:
    """Load the existing document, or None when it is absent or empty."""
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentCorrupt(f"Cannot read {path}: {e}", context={"path": str(path)}) from e
    if not text.strip():
        return None

    try:
        if detect_format(path) == "json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DocumentCorrupt(f"{path} is not valid {detect_format(path).upper()}: {e}", context={"path": str(path)}) from e

    validate_document(data, path)
    return data


def validate_document(data, path: Path | str = "<document>") -> None:
    """Reject documents the merger cannot safely work on."""
    problems = []
    if not isinstance(data, dict):
        raise DocumentCorrupt(f"{path}: document root must be a mapping", context={"path": str(path)})

    if not isinstance(data.get("openapi"), str):
        problems.append("missing 'openapi' version string")

    paths = data.get("paths")
    if not isinstance(paths, dict):
        problems.append("'paths' must be a mapping")
    else:
        for address, item in paths.items():
            if not isinstance(item, dict):
                problems.append(f"path item '{address}' must be a mapping")
                continue
            for verb, operation in item.items():
                if str(verb).startswith("x-") or verb in ("parameters", "summary", "description", "servers", "$ref"):
                    continue
                if not isinstance(operation, dict):
                    problems.append(f"operation '{verb} {address}' must be a mapping")

    tags = data.get("tags", [])
    if not isinstance(tags, list) or not all(isinstance(t, dict) and isinstance(t.get("name"), str) for t in tags):
        problems.append("'tags' must be a list of mappings with a 'name'")

    components = data.get("components", {})
    if not isinstance(components, dict):
        problems.append("'components' must be a mapping")
    else:
        for section in ("schemas", "responses", "securitySchemes"):
            if section in components and not isinstance(components[section], dict):
                problems.append(f"'components.{section}' must be a mapping")

    if problems:
        raise DocumentCorrupt(
            f"{path} is malformed: " + "; ".join(problems),
            context={"path": str(path), "problems": problems},
        )


def new_skeleton(settings: Settings, tag: str) -> dict:
    """The fixed minimal document created when the target does not exist yet."""
    scheme = settings.security_scheme_name
    return {
        "openapi": settings.openapi_version,
        "info": {
            "title": settings.api_title,
            "description": settings.api_description,
            "contact": {"name": settings.contact_name, "email": settings.contact_email},
            "version": settings.api_version,
        },
        "servers": [{"url": settings.server_url}],
        "security": [{scheme: []}],
        "tags": [{"name": tag}],
        "paths": {},
        "components": {
            "securitySchemes": {
                scheme: {"type": "apiKey", "in": "cookie", "name": settings.cookie_name},
            },
        },
    }


def dump_document(document: dict, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    return yaml.dump(
        document,
        Dumper=_NoAliasDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=100,
    )


def write_document(path: Path, text: str) -> None:
    """Replace the target in one step; a failed write leaves the old file intact."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.info("Wrote %s", path)


def _target_mode(path: Path) -> int:
    """Mode of the existing target, or the default mode the umask allows."""
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask
