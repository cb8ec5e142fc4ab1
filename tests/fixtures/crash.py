# Kills its own process in the middle of run().

import os


def run(signal, *args):
    os._exit(3)
