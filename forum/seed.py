"""
forum/seed.py -- Demo accounts and content for local development.

seed() is idempotent: accounts and post titles that already exist are left
alone and reported as skipped, so running it twice changes nothing.

Every admin gets its own freshly generated TOTP secret. The provisioning URIs
are returned so the CLI can print them once; they are never logged.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from auth.accounts import register_admin, register_user
from auth.store import UserStore
from auth.totp import provisioning_uri
from core.errors import DuplicateTitle, UsernameTaken
from forum.models import Anonymous, Comment, Named, Post
from forum.store import ForumStore

logger = logging.getLogger("forum.seed")

DEMO_ADMINS = [("admin_sara", "admin123"), ("admin_ali", "admin456")]
DEMO_USERS = [("reza", "password123"), ("maryam", "password123"), ("arash", "password123")]

# (title, text, author, max_comments)
DEMO_POSTS = [
    (
        "Welcome to the University Forum",
        "This is the official university forum where students and faculty can discuss various topics. "
        "Please be respectful and follow the community guidelines.",
        "admin_sara",
        5,
    ),
    (
        "Forum Rules and Guidelines",
        "Please read these important rules before posting. Be respectful, stay on topic, and help "
        "create a positive learning environment for everyone.",
        "admin_sara",
        3,
    ),
    (
        "Administrative Announcements",
        "This is where we will post important administrative announcements and updates about the "
        "forum and university policies.",
        "admin_ali",
        4,
    ),
    (
        "Campus Technology Updates",
        "Information about upcoming technology changes, new software available to students, and IT "
        "support resources.",
        "admin_ali",
        6,
    ),
    (
        "Study Group for Computer Science",
        "Looking for fellow computer science students to form a study group for the upcoming "
        "algorithms exam.",
        "reza",
        4,
    ),
    (
        "Programming Project Ideas",
        "Sharing some interesting programming project ideas for those looking to build their "
        "portfolio. Feel free to collaborate!",
        "reza",
        5,
    ),
    (
        "Campus Event: Tech Talk Series",
        "The Computer Science department is hosting a tech talk series this semester. Check the "
        "schedule on the department website.",
        "maryam",
        3,
    ),
    (
        "Internship Opportunities in Tech",
        "I found some great internship opportunities and wanted to share them with fellow students.",
        "maryam",
        4,
    ),
    (
        "Need Help with Database Design",
        "I'm working on my database design project and struggling with normalization. Can anyone "
        "recommend good resources?",
        "arash",
        None,
    ),
    (
        "Web Development Best Practices",
        "Let's discuss modern web development best practices. Any recommendations for beginners?",
        "arash",
        None,
    ),
]

# (post title, text, author username or None for anonymous, interesting for)
DEMO_COMMENTS = [
    ("Welcome to the University Forum", "Thanks for setting this up!", "reza", ["maryam", "arash"]),
    ("Welcome to the University Forum", "Looking forward to the discussions.", "maryam", []),
    ("Welcome to the University Forum", "Great initiative.", "arash", ["reza"]),
    ("Welcome to the University Forum", "Hello everyone!", None, []),
    ("Study Group for Computer Science", "Count me in, Tuesdays work for me.", "maryam", ["reza"]),
    ("Study Group for Computer Science", "Can we meet in the library?", "arash", []),
    ("Study Group for Computer Science", "I'd like to join too.", None, []),
    ("Need Help with Database Design", "Start with third normal form and work backwards.", "admin_ali", ["arash"]),
    ("Campus Event: Tech Talk Series", "Will the talks be recorded?", None, []),
]


@dataclass
class SeedReport:
    created_users: list[str] = field(default_factory=list)
    skipped_users: list[str] = field(default_factory=list)
    # username -> otpauth:// URI for newly created admins
    admin_uris: dict[str, str] = field(default_factory=dict)
    created_posts: int = 0
    skipped_posts: int = 0
    created_comments: int = 0


def seed(users: UserStore, forum: ForumStore, issuer: str = "Forum") -> SeedReport:
    report = SeedReport()

    for username, password in DEMO_ADMINS:
        try:
            admin = register_admin(users, username, password)
        except UsernameTaken:
            report.skipped_users.append(username)
            continue
        report.created_users.append(username)
        report.admin_uris[username] = provisioning_uri(admin.totp_secret, username, issuer)

    for username, password in DEMO_USERS:
        try:
            register_user(users, username, password)
        except UsernameTaken:
            report.skipped_users.append(username)
            continue
        report.created_users.append(username)

    new_titles: dict[str, int] = {}
    for title, text, author, max_comments in DEMO_POSTS:
        try:
            post_id = forum.create_post(Post(title=title, text=text, author=author, max_comments=max_comments))
        except DuplicateTitle:
            report.skipped_posts += 1
            continue
        new_titles[title] = post_id
        report.created_posts += 1

    # Comments only go on posts created in this run, so a re-run never doubles them.
    for title, text, author, interesting_for in DEMO_COMMENTS:
        post_id: Optional[int] = new_titles.get(title)
        if post_id is None:
            continue
        comment = Comment(post_id=post_id, text=text, author=Named(author) if author else Anonymous())
        comment_id = forum.add_comment(comment)
        for username in interesting_for:
            forum.toggle_interesting(comment_id, username)
        report.created_comments += 1

    logger.info(
        "Seed complete: %d users, %d posts, %d comments created",
        len(report.created_users),
        report.created_posts,
        report.created_comments,
    )
    return report
