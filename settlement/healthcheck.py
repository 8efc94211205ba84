import asyncio
import os
import sys

from dotenv import load_dotenv

from settlement.api.client import Credentials, SettlementClient
from settlement.errors import SettlementError

# Healthcheck: validate ENV and probe the admin API with the configured token.
#
# You can skip the API probe by setting HEALTHCHECK_SKIP_API=1
# (useful when only configuration should be validated).


async def _check_api(base: str, token: str) -> bool:
    client = SettlementClient(base, Credentials(access_token=token), timeout=12.0)
    try:
        await client.list_orders()
        return True
    except SettlementError as e:
        print(f"api probe failed: {e.message}", file=sys.stderr)
        return False
    finally:
        await client.aclose()


def main() -> int:
    load_dotenv()
    base = (os.getenv("API_BASE_URL", "") or "").rstrip("/")
    token = os.getenv("API_TOKEN", "") or ""
    if not base:
        print("missing API_BASE_URL", file=sys.stderr)
        return 1
    if not token:
        print("missing API_TOKEN", file=sys.stderr)
        return 1

    skip_api = os.getenv("HEALTHCHECK_SKIP_API", "0").strip().lower() in {"1", "true", "yes", "on"}
    if not skip_api and not asyncio.run(_check_api(base, token)):
        print("api not ready", file=sys.stderr)
        return 1

    print("ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
