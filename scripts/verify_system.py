#!/usr/bin/env python3
"""Quick verification script to test all system components.

Checks configuration, database, Soroban RPC reachability, the fee-payer
account and the notification queue.

Usage:
    python scripts/verify_system.py
"""

import asyncio
import sys

import httpx
from dotenv import load_dotenv

load_dotenv()

# Colors for output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"
CHECK = "✓"
CROSS = "✗"
WARN = "⚠"


def print_status(name: str, success: bool, message: str = ""):
    """Print status with color."""
    if success:
        print(f"  {GREEN}{CHECK}{RESET} {name}" + (f" - {message}" if message else ""))
    else:
        print(f"  {RED}{CROSS}{RESET} {name}" + (f" - {message}" if message else ""))


def print_warning(name: str, message: str = ""):
    """Print warning."""
    print(f"  {YELLOW}{WARN}{RESET} {name}" + (f" - {message}" if message else ""))


def test_config():
    """Check required settings."""
    print("\n⚙️  Testing Configuration...")

    from blinks_relay.config import get_settings

    settings = get_settings()
    print_status("Network", True, settings.network_passphrase)
    ok = True
    if settings.payment_router_contract:
        print_status("PaymentRouter contract", True, settings.payment_router_contract)
    else:
        print_warning("PaymentRouter contract", "PAYMENT_ROUTER_CONTRACT not set")
        ok = False
    if settings.has_fee_payer:
        print_status("Fee payer secret", True, "configured")
    else:
        print_warning("Fee payer secret", "FEE_PAYER_SECRET not set - sponsorship disabled")
        ok = False
    return ok


async def test_database():
    """Test database connection."""
    print("\n📦 Testing Database...")

    try:
        from sqlalchemy import text

        from blinks_relay.ledger.database import close_db, get_engine, init_db

        await init_db()
        print_status("Database initialized", True)

        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        print_status("Database connection", True)

        await close_db()
        return True
    except Exception as e:
        print_status("Database", False, str(e))
        return False


async def test_rpc():
    """Check Soroban RPC health with a raw JSON-RPC call."""
    print("\n🌐 Testing Soroban RPC...")

    from blinks_relay.config import get_settings

    settings = get_settings()
    payload = {"jsonrpc": "2.0", "id": 1, "method": "getHealth"}
    try:
        async with httpx.AsyncClient(timeout=settings.rpc_request_timeout) as client:
            response = await client.post(settings.soroban_rpc_url, json=payload)
            response.raise_for_status()
            result = response.json().get("result", {})
        status = result.get("status", "unknown")
        print_status("RPC health", status == "healthy", f"{status}, ledger {result.get('latestLedger')}")
        return status == "healthy"
    except httpx.HTTPError as e:
        print_status("RPC health", False, str(e))
        return False


async def test_fee_payer():
    """Load the fee-payer account sequence."""
    print("\n💸 Testing Fee Payer...")

    from blinks_relay.config import get_settings
    from blinks_relay.errors import RelayError
    from blinks_relay.signing.local import create_fee_payer_signer
    from blinks_relay.stellar.rpc import SorobanLedgerRpc

    settings = get_settings()
    try:
        signer = create_fee_payer_signer(settings)
    except RelayError as e:
        print_status("Fee payer key", False, str(e))
        return False
    if signer is None:
        print_warning("Fee payer", "not configured")
        return False

    rpc = SorobanLedgerRpc(settings.soroban_rpc_url, settings.rpc_request_timeout)
    try:
        sequence = await rpc.get_account_sequence(signer.public_key)
        print_status("Fee payer account", True, f"{signer.public_key} seq {sequence}")
        return True
    except RelayError as e:
        print_status("Fee payer account", False, str(e))
        return False
    finally:
        await rpc.close()


async def test_notifications():
    """Ping the Redis notification queue."""
    print("\n🔔 Testing Notification Queue...")

    from blinks_relay.config import get_settings
    from blinks_relay.notifications.queue import RedisNotificationQueue

    settings = get_settings()
    if not settings.redis_url:
        print_warning("Redis", "REDIS_URL not set - in-memory queue")
        return True

    queue = RedisNotificationQueue(settings.redis_url, settings.notification_queue_name)
    try:
        ok = await queue.ping()
        print_status("Redis ping", ok)
        return ok
    finally:
        await queue.close()


async def main():
    print("=" * 50)
    print("Blinks Relay System Verification")
    print("=" * 50)

    results = {
        "config": test_config(),
        "database": await test_database(),
        "rpc": await test_rpc(),
        "fee_payer": await test_fee_payer(),
        "notifications": await test_notifications(),
    }

    print("\n" + "=" * 50)
    passed = sum(1 for ok in results.values() if ok)
    print(f"Results: {passed}/{len(results)} checks passed")
    return 0 if passed == len(results) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
