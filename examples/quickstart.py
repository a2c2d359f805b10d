"""Quickstart: connect to Szczk Cloud, list, upload and link a file.

Demonstrates:
- Reading adapter settings from ``SZCZK_*`` environment variables
- Opening a Registry and getting a Store
- Listing a folder, uploading with progress and fetching a download link
"""

from __future__ import annotations

import dataclasses
import logging

from szczk_store import BackendConfig, Registry, RegistryConfig, StoreProfile, SzczkConfig

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    # Requires SZCZK_API_KEY, SZCZK_API_SECRET, SZCZK_AUTH_URL and SZCZK_BASE_URL.
    settings = SzczkConfig.from_env()
    config = RegistryConfig(
        backends={"cloud": BackendConfig(type="szczk", options=dataclasses.asdict(settings))},
        stores={"docs": StoreProfile(backend="cloud", root_path="docs")},
    )

    with Registry(config) as registry:
        store = registry.get_store("docs")

        # List the store root
        for obj in store.list_children():
            kind = "dir " if obj.is_folder else "file"
            print(f"{kind} {obj.path} ({obj.size} bytes, modified {obj.modified_at:%Y-%m-%d})")

        # Upload a file, reporting progress
        def report(sent: int, total: int) -> None:
            print(f"  uploaded {sent}/{total} bytes")

        store.upload("hello.txt", b"Hello, world!", progress=report)
        print(f"File exists: {store.exists('hello.txt')}")

        # Fetch a download link
        link = store.link("hello.txt")
        print(f"Download: {link.url}")
