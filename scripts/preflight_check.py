#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Set dummy env vars to avoid surprises during config load
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import pirequest.main
    print("Import pirequest.main: OK")

    import pirequest.queue.jobs
    print("Import pirequest.queue.jobs: OK")

    from pirequest.settings import settings
    print(f"Session backend: {settings.SESSION_BACKEND}, code delivery: {settings.CODE_DELIVERY_MODE}")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
