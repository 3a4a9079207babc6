"""Command line tools for soundcache."""
