import asyncio
import aiohttp
from rich import print

from svlayer.constants import KOREA_BBOX
from svlayer.layer import render_tiles
from svlayer.server import serve
from svlayer.types import TileCoords
from svlayer.my_utils import (
    parse_args,
    timer
)

async def main(args) -> tuple[int, int, str]:
    x_first, x_last = args.x_range
    y_first, y_last = args.y_range
    tiles = [
        TileCoords(x, y, args.zoom)
        for y in range(y_first, y_last + 1)
        for x in range(x_first, x_last + 1)
    ]

    sem_tile = asyncio.Semaphore(args.max_tile)

    connector = aiohttp.TCPConnector(limit=args.conn_limit, limit_per_host=args.conn_limit)

    return await render_tiles(
        sem_tile,
        connector,
        tiles,
        args.output,
        filter=args.filter,
        coverage=KOREA_BBOX if args.korea_only else None,
        timeout=args.timeout
    )


if __name__ == "__main__":
    try:
        args = parse_args()

        if args.serve:
            serve(
                args.host,
                args.port,
                conn_limit=args.conn_limit,
                filter=args.filter,
                coverage=KOREA_BBOX if args.korea_only else None,
                timeout=args.timeout
            )
        else:
            with timer() as t:
                total_tiles, saved_tiles, output_dir = asyncio.run(main(args))

            print(f"\n[gray]{'-' * 85}[/]")
            print(f"\n[orange1]| Rendered [green]{saved_tiles}/{total_tiles}[/] tiles in [green]{t.time_elapsed}[/][/]")
            print(f"[orange1]| Saved at [green]{output_dir}[/][/]\n")
    except Exception as error:
        print(f"[red][MAIN] Error: {error}[/]")
    except KeyboardInterrupt:
        print("[red]Keyboard Interrupted[/]")
