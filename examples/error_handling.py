"""Error handling: catching NotFound, NotSupported, InvalidPath, etc.

Demonstrates the normalized error hierarchy and how to handle errors
programmatically using structured attributes.
"""

from __future__ import annotations

import threading

from szczk_store import (
    AuthFailure,
    Cancelled,
    InvalidPath,
    NotFound,
    NotSupported,
    RemoteError,
    Store,
    SzczkConfig,
    SzczkStoreError,
)
from szczk_store.backends import SzczkBackend

if __name__ == "__main__":
    with SzczkBackend(SzczkConfig.from_env()) as backend:
        store = Store(backend)

        # --- NotFound ---
        try:
            store.get("nonexistent/file.txt")
        except NotFound as exc:
            print(f"NotFound: {exc}")
            print(f"  path={exc.path}, operation={exc.operation}")

        # --- NotSupported (the service has no folder creation) ---
        try:
            store.make_dir("new-folder")
        except NotSupported as exc:
            print(f"\nNotSupported: {exc}")
            print(f"  capability={exc.capability}")

        # --- InvalidPath (path traversal attempt) ---
        try:
            store.get("../../etc/passwd")
        except InvalidPath as exc:
            print(f"\nInvalidPath: {exc}")
            print(f"  path={exc.path}")

        # --- Cancelled (cancellation is checked before each request) ---
        cancel = threading.Event()
        cancel.set()
        try:
            store.list_children(cancel=cancel)
        except Cancelled as exc:
            print(f"\nCancelled: {exc}")

        # --- Service errors carry the HTTP status and body ---
        try:
            store.delete("missing.txt")
        except (RemoteError, AuthFailure) as exc:
            print(f"\n{type(exc).__name__}: status={exc.status} body={exc.body!r}")
        except NotFound as exc:
            print(f"\nNotFound: {exc}")

        # --- Catch any szczk_store error with the base class ---
        for path in ["missing.txt", "../../escape"]:
            try:
                store.link(path)
            except SzczkStoreError as exc:
                print(f"\nSzczkStoreError ({type(exc).__name__}): {exc}")
