"""
Committees module.

- Committees carry a point-in-time snapshot of their members' profiles
- An optional formation letter is kept in storage and removed with the committee
- Members can be emailed on create/update; mail failures never undo the write
"""
