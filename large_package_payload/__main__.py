# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from .cli import run

if __name__ == "__main__":
    run()
