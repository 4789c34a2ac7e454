#!/usr/bin/env python
"""
Create the local storage directory used by shops on the "local" provider.

Honours PREFLIGHT_LOCAL_STORAGE_PATH when set, otherwise media/uploads.
"""
import os
from pathlib import Path


def main() -> None:
    base_dir = Path(__file__).resolve().parent.parent
    storage_dir = Path(os.getenv("PREFLIGHT_LOCAL_STORAGE_PATH", str(base_dir / "media" / "uploads")))
    storage_dir.mkdir(parents=True, exist_ok=True)
    print(f"Ensured preflight storage directory exists at: {storage_dir}")


if __name__ == "__main__":
    main()
