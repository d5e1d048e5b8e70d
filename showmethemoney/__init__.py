"""TWQR personal-transfer QR code generator.

Turns bank transfer details into a scannable TWQR image and resolves
free-text input to a bank from the static directory.
"""
