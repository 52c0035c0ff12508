"""Reader core: chunked reads, line splitting, buffer budgets."""
