"""
Companies module.

- Companies CRUD (waste generators that send inward shipments)
- Per-company materials price list
- Per-company and global statistics
- Material rates hidden from users without the ``rates.view`` permission
"""
