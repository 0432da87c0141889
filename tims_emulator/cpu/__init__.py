"""TIMS CPU: registers and opcode decoding."""
