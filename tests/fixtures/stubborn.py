# Ignores the abort signal entirely.

import asyncio


async def run(signal, *args):
    await asyncio.sleep(3600)
