"""
Invoices module.

Scope:
- Inward / Outward / Transporter invoices with material lines and manifests
- Linking inward/outward entries (an entry belongs to at most one invoice)
- Payment tracking (pending / partial / paid)
- Appending to an open Inward invoice instead of creating a new one

Not in scope:
- PDF rendering and CSV export
- Locking/versioning; concurrent edits are last-writer-wins
"""
