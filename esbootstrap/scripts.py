"""
Painless scripts to transform documents while reindexing into a new index version.

Scripts live in a directory (settings.scripts_dir, default ./migrations) as <group>/<name>,
where group is the alias and name the index suffix of the *new* index, e.g.

    migrations/risk_score/1234567.painless

A missing script is normal: the documents are then copied as they are.
"""

import logging
from pathlib import Path

from esbootstrap.errors import ScriptLoadError

SCRIPT_EXTENSIONS = ("", ".painless")


class ScriptRepository:
    def __init__(self, root: Path | str):
        self.root = Path(root)

    def path_for(self, key: str) -> Path | None:
        group, _, name = key.partition("/")
        if not group or not name or ".." in (group, name):
            raise ValueError(f"Script key should look like <group>/<name>, got {key!r}")
        for extension in SCRIPT_EXTENSIONS:
            path = self.root / group / f"{name}{extension}"
            if path.is_file():
                return path
        return None

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if path is None:
            logging.info(f"No painless script found for {key}")
            return None
        try:
            script = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ScriptLoadError(f"Painless script {path} could not be read: {e}") from e
        logging.info(f"Painless script found for {key}: {path}")
        return script
