"""
Route modules, one per resource:
- auth: register/login/logout/me
- users, photographers, organizers, events, photos, tags, photo_tags
- blobs: stored binaries (avatars, images, markdown images)
"""
