"""Shared route dependencies."""

from fastapi import Request

from sitout.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """The Runtime built by create_app()."""
    return request.app.state.runtime
