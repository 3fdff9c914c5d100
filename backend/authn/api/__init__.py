"""HTTP surface of the sign-in protocol."""
