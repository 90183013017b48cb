"""Structured errors surfaced to the caller of a diff run."""

from __future__ import annotations

from typing import Any, Optional

# String code -> JSON-RPC error code used by the worker protocol
RPC_CODES: dict[str, int] = {
    "missing-analysis": -32004,
    "missing-generation-artifacts": -32005,
    "missing-dependency-manifest": -32006,
    "invalid-params": -32602,
    "invalid-analysis": -32603,
    "build-failure": -32008,
    "build-timeout": -32008,
    "serve-readiness-timeout": -32008,
    "dependency-install-failure": -32009,
    "dependency-install-timeout": -32009,
}


class DiffError(Exception):
    """A fatal diff failure carrying a stable code and diagnostic data."""

    def __init__(self, code: str, message: str, data: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    @property
    def rpc_code(self) -> int:
        return RPC_CODES.get(self.code, -32603)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload

    def __repr__(self) -> str:
        return f"DiffError(code={self.code!r}, message={self.message!r})"


def missing_analysis(path) -> DiffError:
    return DiffError(
        "missing-analysis",
        "analysis.json missing; run analyze before diff",
        {"path": str(path)},
    )


def missing_generation_artifacts(path) -> DiffError:
    return DiffError(
        "missing-generation-artifacts",
        "generation artifacts missing; run generate before diff",
        {"path": str(path)},
    )


def missing_dependency_manifest(path) -> DiffError:
    return DiffError(
        "missing-dependency-manifest",
        "package.json missing in staging; run generate before diff",
        {"path": str(path)},
    )


def invalid_analysis(path, reason: str) -> DiffError:
    return DiffError(
        "invalid-analysis",
        f"failed to read analysis: {reason}",
        {"path": str(path)},
    )


def invalid_params(reason: str, errors: Optional[list] = None) -> DiffError:
    return DiffError("invalid-params", f"invalid diff params: {reason}",
                     {"errors": errors} if errors else None)


def step_failed(code: str, step: str, exit_code: int, stdout: str, stderr: str) -> DiffError:
    return DiffError(
        code,
        f'visual diff failed running "{step}" in staging',
        {"step": step, "exitCode": exit_code, "stdout": stdout, "stderr": stderr},
    )


def step_timed_out(code: str, step: str, timeout_seconds: float) -> DiffError:
    return DiffError(
        code,
        f'visual diff timed out after {timeout_seconds:g}s running "{step}" in staging',
        {"step": step, "timeoutMs": int(timeout_seconds * 1000)},
    )


def serve_readiness_timeout(url: str, timeout_seconds: float) -> DiffError:
    return DiffError(
        "serve-readiness-timeout",
        f"visual diff timed out waiting for staging server at {url}",
        {"url": url, "timeoutMs": int(timeout_seconds * 1000)},
    )


def step_not_runnable(code: str, step: str, error: OSError) -> DiffError:
    return DiffError(
        code,
        f'visual diff could not run "{step}" in staging: {error.strerror or error}',
        {"step": step, "errno": error.errno, "error": str(error)},
    )
