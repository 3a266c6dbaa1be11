"""Transporters module (outward hauliers; also billed through Transporter invoices)."""
