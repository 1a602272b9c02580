"""
File Tools - Edit/Write gated by human review, plus Read and review helpers
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from diffgate.approval.handshake import ApprovalHandshake
from diffgate.approval.registry import Outcome
from diffgate.core.exceptions import DiffGateError, TextNotFoundError, ValidationError
from diffgate.core.interfaces.tool import BaseTool, ToolCategory
from diffgate.core.structured_logger import TraceContext, get_logger

logger = logging.getLogger(__name__)
slog = get_logger("FileTools")


def _resolve_path(file_path: str) -> str:
    if not file_path or not file_path.strip():
        raise ValidationError("file_path must not be empty")
    return os.path.abspath(os.path.expanduser(file_path))


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def _write_text(path: str, content: str, create_parents: bool = False) -> None:
    target = Path(path)
    if create_parents:
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


class _ReviewedWriteTool(BaseTool):
    """Shared outcome handling for tools whose mutation needs approval."""

    VERB = ""
    PAST = ""

    def __init__(self, handshake: ApprovalHandshake) -> None:
        super().__init__()
        self.handshake = handshake

    async def execute(self, parameters: dict[str, Any]) -> dict[str, Any]:
        valid, error = self.validate_parameters(parameters)
        if not valid:
            return self._error_response(f"Error: {error}")

        with TraceContext():
            try:
                return await self._run(parameters)
            except DiffGateError as e:
                slog.warning(f"{self.VERB} not proposed", error=e.to_dict())
                return self._error_response(f"Error: {e.message}", error_code=int(e.error_code))
            except (OSError, UnicodeError) as e:
                logger.error("%s failed: %s", self.metadata.name, e, exc_info=True)
                return self._error_response(f"Error: {e}")

    async def _run(self, parameters: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def _propose_and_apply(self, path: str, before: str, after: str, create_parents: bool = False) -> dict[str, Any]:
        outcome = await self.handshake.propose_change(path, before, after)

        if outcome is Outcome.APPROVED:
            await asyncio.to_thread(_write_text, path, after, create_parents)
            slog.info(f"{self.VERB} applied", filepath=path)
            return self._success_response(f"Successfully {self.PAST} {path}", outcome=outcome.value)

        if outcome is Outcome.REJECTED:
            message = f"{self.VERB} rejected for {path}"
        elif outcome is Outcome.TIMED_OUT:
            message = f"{self.VERB} timed out waiting for review of {path}"
        else:
            message = f"{self.VERB} for {path} could not be submitted for review; no changes were made"
        return self._error_response(message, outcome=outcome.value)


class EditFileTool(_ReviewedWriteTool):
    """Replace one occurrence of a string in a file, after review"""

    VERB = "Edit"
    PAST = "edited"

    METADATA = {
        "name": "Edit",
        "description": "Edit a file with a diff preview that must be approved in the editor",
        "category": ToolCategory.FILE,
        "requires_approval": True,
        "parameters": [
            {"name": "file_path", "param_type": "string", "description": "Path to the file to edit"},
            {"name": "old_string", "param_type": "string", "description": "The exact string to replace"},
            {"name": "new_string", "param_type": "string", "description": "The new string to replace with"},
        ],
    }

    async def _run(self, parameters: dict[str, Any]) -> dict[str, Any]:
        path = _resolve_path(parameters["file_path"])
        old_string = parameters["old_string"]
        new_string = parameters["new_string"]
        if not old_string:
            raise ValidationError("old_string must not be empty")
        if old_string == new_string:
            raise ValidationError("old_string and new_string are identical; there is nothing to change")

        content = await asyncio.to_thread(_read_text, path)
        if old_string not in content:
            raise TextNotFoundError(path)

        modified = content.replace(old_string, new_string, 1)
        return await self._propose_and_apply(path, content, modified)


class WriteFileTool(_ReviewedWriteTool):
    """Create or overwrite a file, after review"""

    VERB = "Write"
    PAST = "wrote"

    METADATA = {
        "name": "Write",
        "description": "Write or create a file with a diff preview that must be approved in the editor",
        "category": ToolCategory.FILE,
        "requires_approval": True,
        "parameters": [
            {"name": "file_path", "param_type": "string", "description": "Path to the file to write"},
            {"name": "content", "param_type": "string", "description": "Content to write to the file"},
        ],
    }

    async def _run(self, parameters: dict[str, Any]) -> dict[str, Any]:
        path = _resolve_path(parameters["file_path"])
        try:
            original = await asyncio.to_thread(_read_text, path)
        except FileNotFoundError:
            original = ""
        return await self._propose_and_apply(path, original, parameters["content"], create_parents=True)


class ReadFileTool(BaseTool):
    """Read a file with cat -n style line numbers"""

    METADATA = {
        "name": "Read",
        "description": "Read a file from the filesystem",
        "category": ToolCategory.FILE,
        "parameters": [
            {"name": "file_path", "param_type": "string", "description": "Path to the file to read"},
            {"name": "offset", "param_type": "int", "description": "Line offset to start reading from", "required": False},
            {"name": "limit", "param_type": "int", "description": "Maximum number of lines to read", "required": False},
        ],
    }

    async def execute(self, parameters: dict[str, Any]) -> dict[str, Any]:
        valid, error = self.validate_parameters(parameters)
        if not valid:
            return self._error_response(f"Error: {error}")

        offset = parameters.get("offset") or 0
        limit = parameters.get("limit")
        if offset < 0 or (limit is not None and limit < 0):
            return self._error_response("Error: offset and limit must not be negative")

        try:
            path = _resolve_path(parameters["file_path"])
            content = await asyncio.to_thread(_read_text, path)
        except ValidationError as e:
            return self._error_response(f"Error: {e.message}")
        except (OSError, UnicodeError) as e:
            return self._error_response(f"Error reading file: {e}")

        return self._success_response(format_numbered_lines(content, offset, limit))


def format_numbered_lines(content: str, offset: int = 0, limit: int | None = None) -> str:
    """Number lines like ``cat -n``; a zero or missing limit reads to the end."""
    lines = content.split("\n")
    end = offset + limit if limit else len(lines)
    return "\n".join(f"{offset + idx + 1:>6}→{line}" for idx, line in enumerate(lines[offset:end]))


class GetDiffTool(BaseTool):
    """Return the content of a change that is awaiting review"""

    METADATA = {
        "name": "get_diff",
        "description": "Get pending diff content by hash",
        "category": ToolCategory.REVIEW,
        "parameters": [
            {"name": "hash", "param_type": "string", "description": "Diff hash"},
        ],
    }

    def __init__(self, handshake: ApprovalHandshake) -> None:
        super().__init__()
        self.handshake = handshake

    async def execute(self, parameters: dict[str, Any]) -> dict[str, Any]:
        valid, error = self.validate_parameters(parameters)
        if not valid:
            return self._error_response(f"Error: {error}")

        proposal = self.handshake.lookup(parameters["hash"])
        if proposal is None:
            return self._error_response(json.dumps({"error": "Diff not found"}))
        return self._success_response(json.dumps({
            "filepath": proposal.path,
            "original": proposal.before,
            "modified": proposal.after,
        }))


class RespondToDiffTool(BaseTool):
    """Approve or reject a pending change from the agent side of the connection"""

    METADATA = {
        "name": "respond_to_diff",
        "description": "Respond to a diff preview (approve/reject)",
        "category": ToolCategory.REVIEW,
        "parameters": [
            {"name": "hash", "param_type": "string", "description": "Diff hash"},
            {"name": "approved", "param_type": "bool", "description": "Whether to approve the diff"},
        ],
    }

    def __init__(self, handshake: ApprovalHandshake) -> None:
        super().__init__()
        self.handshake = handshake

    async def execute(self, parameters: dict[str, Any]) -> dict[str, Any]:
        valid, error = self.validate_parameters(parameters)
        if not valid:
            return self._error_response(f"Error: {error}")

        approved = parameters["approved"]
        if not self.handshake.resolve(parameters["hash"], approved):
            return self._error_response("No pending diff found")
        return self._success_response(f"Diff {'approved' if approved else 'rejected'}")
