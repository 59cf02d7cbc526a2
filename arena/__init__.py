"""Challenge escrow and settlement engine for peer-vs-peer game wagers."""
