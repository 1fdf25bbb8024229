"""Check balance example for the treasury payout relay.

This example demonstrates:
- Building a service from environment variables
- RPC failover on connect
- Balance and status queries
"""

import asyncio

from dotenv import load_dotenv

from payout_api import PayoutService, ServiceConfig

load_dotenv()


async def example_check_balance():
    """Example of querying the custodial balance."""

    config = ServiceConfig.from_env()

    async with PayoutService(config) as service:
        status = service.query_status()
        print(f"🔌 Connected: {status['connected']} via {status['endpoint']}")

        report = await service.query_balance()
        print(f"💰 Backend wallet: {report.address}")
        print(f"   Balance: {report.balance:.6f} ETH (${report.usd:,.2f})")

        if report.has_gas:
            print("✅ Enough ETH to pay transfer fees")
        else:
            print("❌ Send at least 0.01 ETH to the backend wallet for gas")


def main():
    """Run the balance example."""

    print("=" * 50)
    print("Payout relay - Example 01")
    print("💰 Balance check")
    print("=" * 50)

    asyncio.run(example_check_balance())


if __name__ == "__main__":
    main()
