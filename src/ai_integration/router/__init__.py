"""Provider routing with ordered failover, circuit breaking and budget gating."""
