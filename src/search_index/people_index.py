"""Index lifecycle management for bulk loads.

This module applies the index template, creates the target index with
write-optimized settings, restores serving settings after a load, and
exposes the raw bulk-write call used by the bulk submitter.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from opensearchpy.exceptions import OpenSearchException, TransportError

from core.constants import (
    BULK_LOAD_INDEX_SETTINGS,
    INDEX_TEMPLATE_FILE_NAME,
    INDEX_TEMPLATE_NAME,
    SERVING_INDEX_SETTINGS,
)
from core.errors import CensusIndexError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class PeopleIndex:
    """Write-side view of one OpenSearch index."""

    def __init__(
        self,
        client: Any,
        index_name: str,
        template_name: str = INDEX_TEMPLATE_NAME,
        template_body: Mapping[str, Any] | None = None,
    ) -> None:
        self._client = client
        self.index_name = index_name
        self._template_name = template_name
        self._template_body = template_body

    def apply_template(self) -> None:
        """Register the index template; an existing template is success.

        Raises:
            CensusIndexError: If the template cannot be read or applied.
        """
        body = self._template_body or load_index_template(INDEX_TEMPLATE_FILE_NAME)
        try:
            response = self._client.indices.put_index_template(
                name=self._template_name,
                body=body,
                create=True,
            )
        except TransportError as error:
            if error.status_code == 400 and "already exists" in _error_reason(error):
                _LOGGER.info("index_template_exists", template=self._template_name)
                return
            raise CensusIndexError(
                f"Failed to apply index template {self._template_name}: {_error_reason(error)}."
            ) from error
        except OpenSearchException as error:
            raise CensusIndexError(
                f"Failed to apply index template {self._template_name}: {error}."
            ) from error
        _LOGGER.info(
            "index_template_applied",
            template=self._template_name,
            acknowledged=bool(response.get("acknowledged")),
        )

    def create_index(self) -> None:
        """Create the index with replicas off and refresh disabled.

        Raises:
            CensusIndexError: If creation fails for any reason other than
                the index already existing.
        """
        try:
            response = self._client.indices.create(
                index=self.index_name,
                body={"settings": dict(BULK_LOAD_INDEX_SETTINGS)},
            )
        except TransportError as error:
            if error.status_code == 400 and error.error == "resource_already_exists_exception":
                _LOGGER.info("index_exists", index=self.index_name)
                return
            raise CensusIndexError(
                f"Failed to create index {self.index_name}: {_error_reason(error)}."
            ) from error
        except OpenSearchException as error:
            raise CensusIndexError(f"Failed to create index {self.index_name}: {error}.") from error
        _LOGGER.info(
            "index_created",
            index=self.index_name,
            acknowledged=bool(response.get("acknowledged")),
            settings=BULK_LOAD_INDEX_SETTINGS,
        )

    def finalize_index(self) -> None:
        """Restore replica count and refresh interval after a bulk load.

        Raises:
            CensusIndexError: If settings cannot be updated.
        """
        try:
            response = self._client.indices.put_settings(
                index=self.index_name,
                body={"index": dict(SERVING_INDEX_SETTINGS)},
            )
        except OpenSearchException as error:
            raise CensusIndexError(
                f"Failed to finalize index {self.index_name}: {error}."
            ) from error
        _LOGGER.info(
            "index_finalized",
            index=self.index_name,
            acknowledged=bool(response.get("acknowledged")),
            settings=SERVING_INDEX_SETTINGS,
        )

    def bulk_write(self, payload: str) -> Mapping[str, Any]:
        """Send one newline-delimited bulk payload and return the raw response."""
        return self._client.bulk(body=payload)


def load_index_template(file_name: str) -> dict[str, Any]:
    """Load a packaged index template.

    Raises:
        CensusIndexError: If the template file is missing or invalid.
    """
    template_path = TEMPLATES_DIR / file_name
    try:
        return json.loads(template_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise CensusIndexError(
            f"Failed to read index template {template_path}: {error}."
        ) from error


def _error_reason(error: TransportError) -> str:
    """Extract the most specific reason text from a transport error."""
    info = error.info
    if isinstance(info, Mapping):
        detail = info.get("error")
        if isinstance(detail, Mapping):
            reason = detail.get("reason")
            if reason:
                return str(reason)
        elif detail:
            return str(detail)
    return str(error.error)
