"""tpm - Trellis Plugin Manager command line."""
