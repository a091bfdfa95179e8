"""Home Item Status Board: registry reconciliation and condition inference."""
