# Returns its arguments; prints to stdout on the way.

import sys


async def run(signal, *args):
    print("this goes to stderr, not to the control channel")
    sys.stdout.flush()
    return {"args": list(args)}
