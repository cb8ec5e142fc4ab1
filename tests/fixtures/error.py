# run() always raises.


async def run(signal, *args):
    raise RuntimeError("task logic failed")
