"""
Concurrent Billing Simulation Script

Simulates many cashiers composing and submitting bills at once to test
bill-number uniqueness and the Excel ledger under load.
Run from project root: python scripts/simulate.py
"""

import asyncio
import sys
import os
import random
import time
import argparse
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_BILLS = 50
STAFF_EMAIL = os.getenv("SIM_EMAIL", "staff@hotel.local")
STAFF_PASSWORD = os.getenv("SIM_PASSWORD", "staff123")

# Sample data for random bills
FIRST_NAMES = ["Aarav", "Diya", "Rohan", "Meera", "Kabir", "Anaya", "Vikram", "Isha", "Arjun", "Priya"]
LAST_NAMES = ["Sharma", "Iyer", "Patel", "Reddy", "Nair", "Gupta", "Menon", "Rao", "Singh", "Das"]
PAYMENT_METHODS = ["Cash", "Card", "UPI", "Room Charge"]


def generate_random_customer() -> dict[str, Any]:
    """Generate random customer fields; some bills are anonymous."""
    if random.random() < 0.2:
        return {}
    return {
        "customer_name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "customer_phone": f"98{random.randint(10000000, 99999999)}",
        "room_number": random.choice([None, str(random.randint(101, 420))]),
        "payment_method": random.choice(PAYMENT_METHODS),
    }


async def sign_in(client: httpx.AsyncClient) -> dict[str, str]:
    """Sign in and return the auth header for a fresh session (and cart)."""
    response = await client.post(
        f"{API_BASE_URL}/auth/sign-in",
        json={"email": STAFF_EMAIL, "password": STAFF_PASSWORD},
        timeout=30.0,
    )
    response.raise_for_status()
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


# =============================================================================
# BILL SIMULATION
# =============================================================================

async def send_bill(
    client: httpx.AsyncClient,
    bill_num: int,
    menu: list[dict[str, Any]],
) -> dict[str, Any]:
    """Compose a random cart in its own session and submit it."""
    start_time = time.time()

    try:
        headers = await sign_in(client)

        expected = Decimal("0")
        for item in random.sample(menu, k=min(len(menu), random.randint(1, 4))):
            for _ in range(random.randint(1, 3)):
                response = await client.post(
                    f"{API_BASE_URL}/api/cart/items",
                    json={"menu_item_id": item["id"]},
                    headers=headers,
                    timeout=30.0,
                )
                response.raise_for_status()
                expected += Decimal(item["price"])

        response = await client.post(
            f"{API_BASE_URL}/api/bills",
            json=generate_random_customer() or None,
            headers=headers,
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "bill_num": bill_num,
                "success": True,
                "bill_number": data.get("bill_number"),
                "total": float(data["bill"]["total"]),
                "subtotal_ok": Decimal(data["bill"]["subtotal"]) == expected,
                "time": elapsed,
            }
        else:
            return {
                "bill_num": bill_num,
                "success": False,
                "error": response.text[:100],
                "time": elapsed,
            }
    except Exception as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "bill_num": bill_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_bills: int = TOTAL_BILLS) -> dict[str, Any]:
    """
    Run the concurrent billing simulation.

    Args:
        num_bills: Number of bills to submit concurrently
    """
    print("=" * 70)
    print("🔥 BILLING SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Bills: {num_bills}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        headers = await sign_in(client)
        response = await client.get(
            f"{API_BASE_URL}/api/menu",
            params={"available_only": True},
            headers=headers,
        )
        response.raise_for_status()
        menu = response.json()["items"]
        if not menu:
            print("\n❌ No available menu items. Run: python -m scripts.seed")
            return {"total": num_bills, "successful": 0, "failed": num_bills, "results": []}

        print(f"\n🚀 Firing {num_bills} bills over {len(menu)} menu items...\n")
        tasks = [send_bill(client, i + 1, menu) for i in range(num_bills)]
        results = await asyncio.gather(*tasks)

    total_time = round(time.time() - start_time, 2)

    # Analyze results
    successful = [r for r in results if r["success"]]
    failed = [r for r in results if not r["success"]]
    numbers = [r["bill_number"] for r in successful]
    mismatched = [r for r in successful if not r["subtotal_ok"]]

    # Print results
    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Successful Bills: {len(successful)}/{num_bills}")
    print(f"❌ Failed Bills: {len(failed)}/{num_bills}")
    print(f"⏱️  Total Time: {total_time}s")

    if len(set(numbers)) != len(numbers):
        print(f"\n⚠️ Duplicate bill numbers: {len(numbers) - len(set(numbers))}")
    else:
        print("\n✅ All bill numbers unique")

    if mismatched:
        print(f"⚠️ {len(mismatched)} bill(s) with unexpected subtotal")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        min_time = min(r["time"] for r in successful)
        max_time = max(r["time"] for r in successful)
        total_revenue = sum(r.get("total", 0) for r in successful)

        print(f"\n📈 Performance Metrics:")
        print(f"   Average Bill Flow: {avg_time}s")
        print(f"   Fastest: {min_time}s")
        print(f"   Slowest: {max_time}s")
        print(f"   💰 Total Billed: ₹{total_revenue:.2f}")

    if failed:
        print(f"\n⚠️  Failed Bill Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Bill #{f['bill_num']}: {f.get('error', 'Unknown error')}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check Celery terminal - all export tasks should complete")
    print("2. Run: python scripts/verify.py")
    print("3. Open data/bills.xlsx to verify data integrity")
    print("=" * 70)

    return {
        "total": num_bills,
        "successful": len(successful),
        "failed": len(failed),
        "total_time": total_time,
        "results": results
    }


async def test_single_flows() -> bool:
    """Test individual flows before the concurrent run."""
    print("\n" + "=" * 70)
    print("🧪 TESTING INDIVIDUAL FLOWS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        # Test 1: Health check
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code == 200:
            data = response.json()
            print(f"   ✅ Status: {data.get('status')}")
            print(f"   Database: {data.get('database')}")
            print(f"   Redis: {data.get('redis')}")
            print(f"   Auth: {data.get('auth_service')}")
        else:
            print(f"   ❌ Failed: {response.text}")
            return False

        # Test 2: Sign in
        print("\n2️⃣ Sign In...")
        try:
            headers = await sign_in(client)
        except httpx.HTTPError as e:
            print(f"   ❌ Failed: {e}")
            return False
        response = await client.get(f"{API_BASE_URL}/api/me", headers=headers)
        print(f"   ✅ Signed in as {response.json().get('role_label')}")

        # Test 3: Empty cart is rejected
        print("\n3️⃣ Empty Cart Submit...")
        response = await client.post(f"{API_BASE_URL}/api/bills", headers=headers)
        if response.status_code == 400:
            print(f"   ✅ Rejected: {response.json().get('detail')}")
        else:
            print(f"   ⚠️ Unexpected response: {response.status_code} {response.text[:100]}")

        # Test 4: Sign out
        print("\n4️⃣ Sign Out...")
        response = await client.post(f"{API_BASE_URL}/auth/sign-out", headers=headers)
        print(f"   ✅ {response.json().get('message')}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent Billing Simulation")
    parser.add_argument("--bills", type=int, default=TOTAL_BILLS, help="Number of bills")
    parser.add_argument("--skip-tests", action="store_true", help="Skip individual tests")
    args = parser.parse_args()

    # Run tests first
    if not args.skip_tests:
        success = asyncio.run(test_single_flows())
        if not success:
            print("\n❌ Pre-flight tests failed. Fix issues before running simulation.")
            sys.exit(1)

        print("\n✅ Pre-flight tests passed!")
        input("\nPress Enter to start the simulation...")

    # Run simulation
    asyncio.run(run_simulation(num_bills=args.bills))
