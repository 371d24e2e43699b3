import ftplib
import posixpath
from typing import Optional


def join_remote_path(remote_dir: str, name: str) -> str:
    if remote_dir in {"", "."}:
        return name
    if remote_dir == "/":
        return f"/{name}"
    return posixpath.join(remote_dir.rstrip("/"), name)


def normalize_remote_path(path: str) -> str:
    value = (path or "").strip().replace("\\", "/")
    if not value:
        return ""
    is_abs = value.startswith("/")
    normalized = posixpath.normpath(value)
    if normalized == ".":
        return "/" if is_abs else "."
    if is_abs and not normalized.startswith("/"):
        normalized = f"/{normalized}"
    # posixpath keeps a leading "//" intact
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def build_row(remote_dir: str, name: str, facts: Optional[dict] = None) -> dict:
    meta = dict(facts or {})
    return {
        "name": str(name),
        "path": join_remote_path(remote_dir, str(name)),
        "type": str(meta.get("type", "")),
        "size": str(meta.get("size", meta.get("st_size", ""))),
        "modify": str(meta.get("modify", "")),
    }


def sort_rows(rows: list[dict]) -> list[dict]:
    rows.sort(key=lambda item: (str(item.get("type", "")) != "dir", str(item.get("name", "")).casefold()))
    return rows


def list_dir_detailed_ftplib(client: ftplib.FTP, remote_dir: str, limit: int = 500) -> tuple[list[dict], str]:
    rows: list[dict] = []
    limit = max(1, int(limit))
    try:
        for name, facts in client.mlsd(remote_dir):
            if name in {".", ".."} or str((facts or {}).get("type", "")) in {"cdir", "pdir"}:
                continue
            rows.append(build_row(remote_dir, name, facts))
            if len(rows) >= limit:
                break
        return rows, "ftplib:mlsd"
    except ftplib.error_perm:
        # MLSD is optional (RFC 3659); NLST is the portable fallback.
        rows = []

    try:
        names = client.nlst(remote_dir)
    except ftplib.error_perm as exc:
        if str(exc).startswith("550"):
            return [], "ftplib:nlst"
        raise
    for raw in names:
        value = str(raw).strip()
        if not value:
            continue
        name = posixpath.basename(value.rstrip("/"))
        if name in {".", "..", ""}:
            continue
        rows.append(build_row(remote_dir, name))
        if len(rows) >= limit:
            break
    return rows, "ftplib:nlst"


def file_extension(filename: str) -> str:
    base = str(filename).replace("\\", "/").rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1]


def normalize_extension(extension: str) -> str:
    return str(extension).strip().lstrip(".").lower()
