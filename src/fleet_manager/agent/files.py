"""Property files and the config/connector file handler.

Property files use the engine's ``.properties`` format: ``key=value``,
``key: value`` or ``key value`` per line, ``#``/``!`` comments. Edits keep
every other line (comments, ordering) untouched.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path

from fleet_manager.errors import ClientInputError, FleetManagerError, ResourceNotFound

logger = logging.getLogger(__name__)

_PROPERTY_LINE = re.compile(r"^\s*(?P<key>[^\s=:#!][^\s=:]*)(?:\s*[=:]\s*|\s+|\s*$)(?P<value>.*)$")
_URL_SCHEMES = frozenset({"http", "https", "ftp", "file"})
DOWNLOAD_TIMEOUT = 300.0


def _is_comment(line: str) -> bool:
    stripped = line.lstrip()
    return not stripped or stripped[0] in "#!"


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``.properties`` text. Later keys win."""
    props: dict[str, str] = {}
    for line in text.splitlines():
        if _is_comment(line):
            continue
        match = _PROPERTY_LINE.match(line)
        if match is not None:
            props[match.group("key")] = match.group("value").rstrip()
    return props


def read_properties(path: Path) -> dict[str, str]:
    if not path.is_file():
        raise ResourceNotFound("File not found")
    return parse_properties(path.read_text(encoding="utf-8"))


def get_property(path: Path, key: str) -> str:
    props = read_properties(path)
    if key not in props:
        raise ResourceNotFound("Property does not exist")
    return props[key]


def set_property(path: Path, key: str, value: str) -> None:
    """Set *key* in an existing file, replacing its line or appending one."""
    if not path.is_file():
        raise ResourceNotFound("File not found")
    lines = path.read_text(encoding="utf-8").splitlines()
    new_line = f"{key}={value}"
    out: list[str] = []
    replaced = False
    for line in lines:
        if _line_key(line) == key:
            if not replaced:
                out.append(new_line)
                replaced = True
            continue
        out.append(line)
    if not replaced:
        out.append(new_line)
    path.write_text("\n".join(out) + "\n", encoding="utf-8")


def delete_property(path: Path, key: str) -> None:
    if not path.is_file():
        raise ResourceNotFound("File not found")
    lines = path.read_text(encoding="utf-8").splitlines()
    kept = [line for line in lines if _line_key(line) != key]
    if len(kept) == len(lines):
        raise ResourceNotFound("Property does not exist")
    path.write_text("".join(f"{line}\n" for line in kept), encoding="utf-8")


def write_properties(path: Path, props: dict[str, str], comment: str | None = None) -> None:
    lines = [f"# {comment}"] if comment else []
    lines.extend(f"{k}={v}" for k, v in props.items())
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _line_key(line: str) -> str | None:
    if _is_comment(line):
        return None
    match = _PROPERTY_LINE.match(line)
    return match.group("key") if match is not None else None


def validate_url(url: str) -> str:
    """Return *url* stripped, or raise ClientInputError if it isn't a usable URL."""
    url = url.strip()
    if not url:
        raise ClientInputError("Expected URL in the request body")
    try:
        parsed = urllib.parse.urlsplit(url)
    except ValueError as e:
        raise ClientInputError("Invalid url") from e
    if parsed.scheme not in _URL_SCHEMES:
        raise ClientInputError("Invalid url")
    if parsed.scheme != "file" and not parsed.netloc:
        raise ClientInputError("Invalid url")
    return url


def download_file(url: str, suffix: str = ".tmp", timeout: float = DOWNLOAD_TIMEOUT) -> Path:
    """Download *url* to a new temp file and return its path.

    The caller owns (and must delete) the file.
    """
    fd, name = tempfile.mkstemp(prefix="fleet-manager-", suffix=suffix)
    target = Path(name)
    try:
        with open(fd, "wb") as out, urllib.request.urlopen(url, timeout=timeout) as resp:
            shutil.copyfileobj(resp, out)
    except urllib.error.HTTPError as e:
        target.unlink(missing_ok=True)
        raise ResourceNotFound(f"Failed to download {url}: {e.code} {e.reason}") from e
    except OSError as e:
        target.unlink(missing_ok=True)
        raise ResourceNotFound(f"Failed to download {url}: {e}") from e
    logger.debug("Downloaded %s to %s", url, target)
    return target


class FileHandler:
    """File operations confined to one base directory (config or catalog)."""

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def list_files(self) -> list[str]:
        if not self._base_dir.is_dir():
            logger.error("Directory %s is not found or not a directory", self._base_dir)
            raise FleetManagerError("Directory not found or is not a directory")
        return sorted(p.name for p in self._base_dir.iterdir() if p.is_file())

    def get_file(self, name: str) -> str:
        path = self.resolve(name)
        if not path.is_file():
            raise ResourceNotFound("File not found")
        return path.read_text(encoding="utf-8")

    def replace_from_url(self, name: str, url: str) -> None:
        path = self.resolve(name)
        url = validate_url(url)
        tmp = download_file(url)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)
        logger.info("Replaced file %s with file at url %s", path, url)

    def delete_file(self, name: str) -> None:
        path = self.resolve(name)
        if not path.is_file():
            raise ResourceNotFound("File not found")
        path.unlink()
        logger.info("Deleted file %s", path)

    def get_property(self, name: str, key: str) -> str:
        return get_property(self.resolve(name), key)

    def set_property(self, name: str, key: str, value: str) -> None:
        set_property(self.resolve(name), key, value)
        logger.info("Updated property %s in file %s", key, name)

    def delete_property(self, name: str, key: str) -> None:
        delete_property(self.resolve(name), key)
        logger.info("Deleted property %s from file %s", key, name)

    def resolve(self, name: str) -> Path:
        """Path of *name* under the base directory; rejects escapes."""
        base = self._base_dir.resolve()
        path = (base / name).resolve()
        if path == base or not path.is_relative_to(base):
            raise ClientInputError("Invalid file name")
        return path
