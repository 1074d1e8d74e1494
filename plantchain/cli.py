"""
plantchain: command line client for confidential eco points.

Usage:
    plantchain points show
    plantchain points add
    plantchain points tip --plant 3
    plantchain points decrypt [--user]
    plantchain logs --plant 3 [--no-pay]
    plantchain plants [--owner 0x...]
    plantchain deployments --scan ../plantchain-hardhat/deployments --output deployments.json

Environment variables:
    PLANTCHAIN_RPC_URL      - JSON-RPC endpoint (default http://localhost:8545)
    PLANTCHAIN_PRIVATE_KEY  - wallet key used for signing
    PLANTCHAIN_DEPLOYMENTS  - deployments JSON (chainId -> ledger address)
"""
import argparse
import asyncio
import logging
import sys

from .config import DEPLOYMENTS_PATH, LOG_LEVEL, POINT_LOG_FEE_WEI, PRIVATE_KEY, RPC_URL
from .lib.errors import PlantChainError
from .lib.transport import JsonRpcWallet
from .services.decryption import DecryptStatus
from .services.deployments import DeploymentRegistry
from .services.plants import PlantClient
from .services.points import PointsLedgerClient
from .services.session import PointsSession

logger = logging.getLogger("cli")


def _wallet(args) -> JsonRpcWallet:
    return JsonRpcWallet(args.rpc_url, args.private_key)


async def _points_client(args) -> PointsLedgerClient:
    registry = DeploymentRegistry.from_file(args.deployments)
    return await PointsLedgerClient.connect(_wallet(args), registry)


async def points_command(args) -> int:
    client = await _points_client(args)
    session = PointsSession(client)

    if args.action == "show":
        print(f"Chain: {client.chain_id}")
        print(f"Ledger: {client.network().contract_address}")
        print(f"Balance handle: {await session.refresh()}")
    elif args.action == "add":
        print(f"New balance handle: {await session.add_point()}")
    elif args.action == "tip":
        print(f"Tipped plant {args.plant}, balance handle: {await session.tip_point(args.plant)}")
    elif args.action == "decrypt":
        result = await (session.decrypt_user() if args.user else session.decrypt_public())
        if result.status == DecryptStatus.ACCESS_DENIED:
            print("Balance is not publicly decryptable; rerun with --user to sign a decryption request")
            return 1
        if not result.ok:
            print(f"ERROR: {result.error}", file=sys.stderr)
            return 1
        print(f"Eco points: {result.value}")
    return 0


async def logs_command(args) -> None:
    client = await _points_client(args)
    if args.no_pay:
        entries = await client.get_point_logs(args.plant)
    else:
        entries = await client.load_point_logs(args.plant, args.fee)

    print(f"Point logs for plant {args.plant}: {len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")
    for entry in entries:
        print(f"  {entry.timestamp}  {entry.from_address}  +{entry.amount}  ({entry.reason.label})")


async def plants_command(args) -> None:
    registry = DeploymentRegistry.from_file(args.deployments)
    wallet = _wallet(args)
    points = await PointsLedgerClient.connect(wallet, registry)
    plants = PlantClient(wallet, points.chain_id, registry)

    plant_ids = await plants.get_my_plants(args.owner)
    if not plant_ids:
        print("No plants")
        return
    for plant_id in plant_ids:
        plant = await plants.get_plant(plant_id)
        minted = await plants.plant_minted(plant_id)
        print(f"#{plant.id} {plant.name} ({plant.species}){' [NFT]' if minted else ''}")
        image = PlantClient.image_url(plant)
        if image:
            print(f"    image: {image}")


def deployments_command(args) -> None:
    registry = DeploymentRegistry.from_deployments_dir(args.scan)
    registry.save(args.output)
    print(f"Wrote {len(registry)} deployment(s) to {args.output}")
    for chain_id in registry.chain_ids:
        deployment = registry.get(chain_id)
        print(f"  {chain_id} ({deployment.chain_name}): {deployment.address}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="plantchain: confidential eco points client"
    )
    parser.add_argument("--rpc-url", default=RPC_URL, help="JSON-RPC endpoint")
    parser.add_argument("--private-key", default=PRIVATE_KEY, help="Wallet private key (hex)")
    parser.add_argument("--deployments", default=str(DEPLOYMENTS_PATH), help="Deployments JSON path")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    points_parser = subparsers.add_parser("points", help="Encrypted eco points")
    points_parser.add_argument("action", choices=["show", "add", "tip", "decrypt"])
    points_parser.add_argument("--plant", type=int, help="Plant id (for tip)")
    points_parser.add_argument("--user", action="store_true",
                               help="Decrypt with a signed user-decrypt request")

    logs_parser = subparsers.add_parser("logs", help="Pay to view a plant's point logs")
    logs_parser.add_argument("--plant", type=int, required=True, help="Plant id")
    logs_parser.add_argument("--fee", type=int, default=POINT_LOG_FEE_WEI,
                             help=f"View fee in wei (default: {POINT_LOG_FEE_WEI})")
    logs_parser.add_argument("--no-pay", action="store_true", help="Read without paying (owners)")

    plants_parser = subparsers.add_parser("plants", help="List plants")
    plants_parser.add_argument("--owner", help="Owner address (default: wallet)")

    deployments_parser = subparsers.add_parser("deployments", help="Generate the deployments JSON")
    deployments_parser.add_argument("--scan", required=True, help="Hardhat deployments directory")
    deployments_parser.add_argument("--output", default=str(DEPLOYMENTS_PATH), help="Output JSON path")

    args = parser.parse_args(argv)
    if args.command == "points" and args.action == "tip" and args.plant is None:
        parser.error("--plant is required to tip")

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command != "deployments" and not args.private_key:
        print("ERROR: no wallet key (set PLANTCHAIN_PRIVATE_KEY or pass --private-key)", file=sys.stderr)
        sys.exit(2)

    try:
        if args.command == "points":
            code = asyncio.run(points_command(args))
            if code:
                sys.exit(code)
        elif args.command == "logs":
            asyncio.run(logs_command(args))
        elif args.command == "plants":
            asyncio.run(plants_command(args))
        elif args.command == "deployments":
            deployments_command(args)
    except PlantChainError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
