"""HTTP API of the VitaSport back office."""
