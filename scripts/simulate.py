"""
Chaos Simulation Script

Fires concurrent orders at a running Unified Order API, then races two
accepts against every order to confirm exactly one wins, and walks a few
orders through the full rider flow.

Run from project root: python scripts/simulate.py --orders 50

Author: Khalil_Bannouri
Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:3001"
API_PREFIX = "/api/unified"
TOTAL_ORDERS = 50
RESTAURANT_IDS = ["1", "2", "3"]

# Sample data for random orders
FIRST_NAMES = ["Asha", "Rohan", "Priya", "Vikram", "Neha", "Arjun", "Kavya", "Ishaan", "Meera", "Dev"]
LAST_NAMES = ["Patel", "Sharma", "Iyer", "Kulkarni", "Reddy", "Gupta", "Nair", "Joshi", "Mehta", "Rao"]
STREETS = ["MG Road", "FC Road", "JM Road", "Baner Road", "Law College Road", "Karve Road"]
MENU_ITEMS = [
    {"name": "Paneer Tikka", "price": 180.0},
    {"name": "Butter Chicken", "price": 260.0},
    {"name": "Veg Biryani", "price": 200.0},
    {"name": "Garlic Naan", "price": 50.0},
    {"name": "Dal Makhani", "price": 170.0},
    {"name": "Gulab Jamun", "price": 80.0},
    {"name": "Masala Chaas", "price": 40.0},
]


def api(path: str) -> str:
    return f"{API_BASE_URL}{API_PREFIX}{path}"


def generate_order_payload() -> dict[str, Any]:
    """Generate a random customer order in the app's camelCase shape."""
    items = []
    for _ in range(random.randint(1, 4)):
        item = random.choice(MENU_ITEMS).copy()
        item["quantity"] = random.randint(1, 3)
        items.append(item)

    subtotal = sum(i["price"] * i["quantity"] for i in items)
    restaurant_id = random.choice(RESTAURANT_IDS)

    return {
        "customerId": f"cust_{random.randint(1, 20)}",
        "customerName": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "customerPhone": f"98{random.randint(10000000, 99999999)}",
        "deliveryAddress": f"{random.randint(1, 999)} {random.choice(STREETS)}, Pune",
        "restaurantId": restaurant_id,
        "restaurantName": f"Restaurant {restaurant_id}",
        "items": items,
        "total": subtotal + 30 + 8,
        "paymentMethod": random.choice(["cash_on_delivery", "online"]),
        "notes": random.choice([None, "Less spicy", "Ring doorbell", "Leave at door"]),
    }


# =============================================================================
# STEPS
# =============================================================================

async def create_order(client: httpx.AsyncClient, order_num: int) -> dict[str, Any]:
    payload = generate_order_payload()
    start_time = time.time()

    try:
        response = await client.post(api("/orders"), json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()["data"]
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["orderId"],
                "restaurant_id": data["restaurantId"],
                "total": data["total"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


async def race_accepts(client: httpx.AsyncClient, order: dict[str, Any]) -> dict[str, Any]:
    """Send two accepts for one order at the same time."""
    url = api(f"/restaurant/{order['restaurant_id']}/orders/{order['order_id']}/accept")
    responses = await asyncio.gather(
        client.post(url, json={"prepTime": 20}),
        client.post(url, json={"prepTime": 25}),
        return_exceptions=True,
    )
    codes = [r.status_code if isinstance(r, httpx.Response) else None for r in responses]
    return {"order_id": order["order_id"], "codes": codes, "winners": codes.count(200)}


async def walk_rider_flow(client: httpx.AsyncClient, order_id: str) -> bool:
    """ready -> rider assigned -> picked up -> out for delivery -> delivered."""
    order = (await client.get(api(f"/orders/{order_id}"))).json()["data"]
    restaurant_id = order["restaurantId"]

    steps = [
        (api(f"/restaurant/{restaurant_id}/orders/{order_id}/ready"), None),
        (api(f"/orders/{order_id}/rider-assigned"), {"riderId": "rider_7", "riderName": "Sameer"}),
        (api(f"/orders/{order_id}/picked-up"), None),
        (api(f"/orders/{order_id}/out-for-delivery"), None),
        (api(f"/orders/{order_id}/delivered"), {"verificationCode": order["verificationCode"].lower()}),
    ]
    for url, body in steps:
        response = await client.post(url, json=body)
        if response.status_code != 200:
            print(f"   ❌ {url.rsplit('/', 1)[-1]} failed: {response.text[:100]}")
            return False
    return True


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS, flows: int = 3) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 CHAOS SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}{API_PREFIX}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        print("\n🚀 Firing orders...\n")
        results = await asyncio.gather(*[create_order(client, i + 1) for i in range(num_orders)])
        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print("⚔️  Racing double accepts...\n")
        races = await asyncio.gather(*[race_accepts(client, r) for r in successful])
        clean_races = [r for r in races if r["winners"] == 1]

        print("🛵 Walking rider flows...\n")
        flow_ok = 0
        for race in clean_races[:flows]:
            if await walk_rider_flow(client, race["order_id"]):
                flow_ok += 1

    total_time = round(time.time() - start_time, 2)

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Created: {len(successful)}/{num_orders}")
    print(f"❌ Failed: {len(failed)}/{num_orders}")
    print(f"⚔️  Races with exactly one winner: {len(clean_races)}/{len(races)}")
    print(f"🛵 Full rider flows completed: {flow_ok}/{min(flows, len(clean_races))}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        print(f"\n📈 Average create response: {avg_time}s")
        print(f"   💰 Total order value: ₹{sum(r['total'] for r in successful):.2f}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")

    bad_races = [r for r in races if r["winners"] != 1]
    if bad_races:
        print("\n⚠️  Races without exactly one winner (showing first 5):")
        for r in bad_races[:5]:
            print(f"   {r['order_id']}: {r['codes']}")

    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "clean_races": len(clean_races),
        "total_time": total_time,
    }


async def preflight() -> bool:
    """Health check before the simulation."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"❌ API unreachable: {e}")
            return False

    if response.status_code != 200:
        print(f"❌ Health check failed: {response.text}")
        return False

    data = response.json()
    print(f"✅ Status: {data.get('status')}")
    print(f"   Store: {data.get('store')}")
    print(f"   Dispatch: {data.get('dispatch')}")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chaos Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--flows", type=int, default=3, help="Orders to walk through delivery")
    parser.add_argument("--url", default=API_BASE_URL, help="API base URL")
    args = parser.parse_args()

    API_BASE_URL = args.url.rstrip("/")

    if not asyncio.run(preflight()):
        sys.exit(1)

    asyncio.run(run_simulation(args.orders, args.flows))
