from __future__ import annotations
from pathlib import Path


def project_root() -> Path:
    """
    Projektroot über Marker finden: run.py + src/
    Unabhängig vom Working Directory (Streamlit/Terminal/pytest).
    """
    here = Path(__file__).resolve()
    for p in [here] + list(here.parents):
        if (p / "run.py").exists() and (p / "src").is_dir():
            return p
    # installiert (site-packages): aktuelles Verzeichnis
    return Path.cwd()


def artifacts_dir() -> Path:
    p = project_root() / "artifacts"
    p.mkdir(parents=True, exist_ok=True)
    return p


def resolve_data_path(path: str | Path) -> Path:
    """Relative Pfade aus der .env gegen den Projektroot auflösen."""
    p = Path(path).expanduser()
    if p.is_absolute():
        return p
    return project_root() / p
