"""
Token persistence.

Tokens are written to a local dotenv-style or JSON file for reuse by the API
test scripts. Updates happen in place: values for known keys are replaced,
everything else in the file is preserved.
"""

import io
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from dotenv import dotenv_values
from dotenv.parser import parse_stream

from ..config import Config
from ..models import TokenSet


logger = logging.getLogger(__name__)

_NEEDS_QUOTES = set(' \t#"\'$\\')


def _format_value(value: str) -> str:
    if value and not _NEEDS_QUOTES.intersection(value):
        return value
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def _leading_lines(original: str) -> str:
    # parse_stream attaches the blank lines above a binding to that binding
    blank = original[:len(original) - len(original.lstrip())]
    return blank[:blank.rfind('\n') + 1]


def update_dotenv_text(text: str, entries: Dict[str, str], remove: Iterable[str] = ()) -> str:
    """
    Apply ``entries`` to the contents of a dotenv file.

    The first line for each key is replaced in place and any later line for
    the same key is dropped, as is every line for a key in ``remove``.
    Comments, blank lines and other keys are kept verbatim; keys not present
    yet are appended.
    """
    remove = set(remove) - set(entries)
    lines = []
    written = set()
    for binding in parse_stream(io.StringIO(text)):
        key = binding.key
        if key is not None and (key in entries or key in remove):
            lines.append(_leading_lines(binding.original.string))
            if key in entries and key not in written:
                lines.append(f"{key}={_format_value(entries[key])}\n")
                written.add(key)
            continue
        lines.append(binding.original.string)

    lines = [line for line in lines if line]
    pending = [f"{key}={_format_value(value)}\n" for key, value in entries.items() if key not in written]
    if pending and lines and not lines[-1].endswith('\n'):
        lines[-1] += '\n'
    return ''.join(lines + pending)


def _write_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as tmp_file:
            tmp_file.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class TokenPersister:
    """Saves token sets into a dotenv or JSON file."""

    def __init__(self, path: Union[str, Path], key_prefix: str = ""):
        """
        Initialize the persister.

        Args:
            path: Token file; a ``.json`` suffix selects JSON storage,
                anything else is treated as a dotenv file
            key_prefix: Prefix for token keys, e.g. ``GOOGLE_``
        """
        self.path = Path(path)
        self.key_prefix = key_prefix

    @property
    def is_json(self) -> bool:
        return self.path.suffix.lower() == '.json'

    def key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    def entries_for(self, token_set: TokenSet, now: Optional[datetime] = None) -> Dict[str, str]:
        """Key/value pairs written for ``token_set``."""
        entries = {self.key('ACCESS_TOKEN'): token_set.access_token}
        if token_set.refresh_token:
            entries[self.key('REFRESH_TOKEN')] = token_set.refresh_token
        if token_set.expires_in is not None:
            now = now or datetime.now(timezone.utc)
            expiry = now + timedelta(seconds=token_set.expires_in)
            entries[self.key('TOKEN_EXPIRY')] = expiry.replace(microsecond=0).isoformat()
        entries[Config.MODE_KEY] = Config.MODE_LIVE
        return entries

    def persist(self, token_set: TokenSet, now: Optional[datetime] = None) -> Dict[str, str]:
        """
        Write ``token_set`` to the token file.

        Returns:
            The entries that were written; a stored expiry is removed when
            the token set has none

        Raises:
            ValueError: If the token set has no access token
            OSError: If the file cannot be written
        """
        if token_set is None or not token_set.access_token:
            raise ValueError("Refusing to persist a token set without an access token")

        entries = self.entries_for(token_set, now)
        # an expiry describes one access token and must not outlive it
        stale = [] if token_set.expires_in is not None else [self.key('TOKEN_EXPIRY')]
        if self.is_json:
            data = self._load_json()
            for key in stale:
                data.pop(key, None)
            data.update(entries)
            _write_atomic(self.path, json.dumps(data, indent=2) + '\n')
        else:
            text = self.path.read_text(encoding='utf-8') if self.path.exists() else ''
            _write_atomic(self.path, update_dotenv_text(text, entries, stale))

        logger.info(f"Tokens saved to {self.path} ({', '.join(entries)})")
        return entries

    def load(self) -> Dict[str, str]:
        """Return the stored key/value pairs (empty if the file is missing)."""
        if not self.path.exists():
            return {}
        if self.is_json:
            return {key: str(value) for key, value in self._load_json().items() if value is not None}
        return {key: value for key, value in dotenv_values(self.path).items() if value is not None}

    def stored_token(self, name: str) -> Optional[str]:
        """Stored value of a token key such as ``ACCESS_TOKEN``."""
        return self.load().get(self.key(name)) or None

    def _load_json(self) -> Dict[str, object]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            content = f.read().strip()
        if not content:
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data
