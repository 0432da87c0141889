"""
TIMS CPU Register Set

Register model:
  IP   instruction pointer, word index into the store
  IR   instruction register, last fetched word (signed 16-bit)
  ACC  accumulator (signed 16-bit). Read by BN/BZ; no opcode in the
       current instruction set writes it, so it stays at its reset value
       unless a caller sets it.
"""


class Registers:
    """TIMS register set, owned by the emulator and mutated by step()."""

    __slots__ = ('instruction_pointer', 'instruction_register', 'accumulator', 'fetches')

    def __init__(self, instruction_pointer: int = 0):
        self.instruction_pointer: int = instruction_pointer
        self.instruction_register: int = 0
        self.accumulator: int = 0
        self.fetches: int = 0        # instruction fetch counter

    # --- Display ---

    def display(self) -> str:
        """Format register state the way the halt dump prints it."""
        return (f"REGISTERS:\n"
                f"{'Instruction Pointer':<24}0x{self.instruction_pointer:02x}\n"
                f"{'Instruction Register':<22}0x{self.instruction_register & 0xFFFF:04x}\n"
                f"{'Accumulator':<22}0x{self.accumulator & 0xFFFF:04x}")

    def reset(self, instruction_pointer: int = 0):
        self.instruction_pointer = instruction_pointer
        self.instruction_register = 0
        self.accumulator = 0
        self.fetches = 0
