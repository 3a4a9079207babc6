"""Allow ``python -m soundcache.cli`` execution."""

from soundcache.cli.prefetch import main

main()
