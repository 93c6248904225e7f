#!/usr/bin/env python3
from mdblog.cli import main

if __name__ == "__main__":
    main()
