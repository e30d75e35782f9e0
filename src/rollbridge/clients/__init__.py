"""Adapters for the external systems: L1 node, L2 RPC, proof service, webhooks."""
