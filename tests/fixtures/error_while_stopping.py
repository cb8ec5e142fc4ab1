# Stops when asked, but its abort hook raises.


async def run(signal, *args):
    await signal.wait()
    return None


def abort():
    raise RuntimeError("cleanup failed while stopping")
