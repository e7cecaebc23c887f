"""Core domain types shared by decoders, router and exposition."""
