"""Command handlers for the minifly command line."""