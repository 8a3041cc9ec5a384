import apps.contests.models
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Contest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("slug", models.SlugField(max_length=200, unique=True, verbose_name="标识")),
                ("title", models.CharField(max_length=200, verbose_name="比赛名称")),
                ("description", models.TextField(blank=True, default="", verbose_name="比赛描述")),
                (
                    "contest_type",
                    models.CharField(
                        choices=[("individual", "个人赛"), ("team", "团队赛")],
                        default="individual",
                        max_length=20,
                        verbose_name="赛制",
                    ),
                ),
                ("registration_start", models.DateTimeField(verbose_name="报名开始时间")),
                ("registration_end", models.DateTimeField(verbose_name="报名截止时间")),
                ("start_time", models.DateTimeField(verbose_name="开始时间")),
                ("end_time", models.DateTimeField(verbose_name="结束时间")),
                (
                    "max_participants",
                    models.PositiveIntegerField(
                        blank=True,
                        default=apps.contests.models._default_max_participants,
                        null=True,
                        verbose_name="人数上限",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "草稿"),
                            ("published", "已发布"),
                            ("registration_open", "报名中"),
                            ("registration_closed", "报名截止"),
                            ("active", "进行中"),
                            ("completed", "已结束"),
                            ("cancelled", "已取消"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=32,
                        verbose_name="状态",
                    ),
                ),
                ("allow_clarifications", models.BooleanField(default=True, verbose_name="允许答疑")),
                ("freeze_leaderboard", models.BooleanField(default=False, verbose_name="封榜")),
                (
                    "freeze_minutes",
                    models.PositiveIntegerField(
                        default=apps.contests.models._default_freeze_minutes, verbose_name="封榜时长（分钟）"
                    ),
                ),
                ("max_attempts", models.PositiveIntegerField(blank=True, null=True, verbose_name="单题提交次数上限")),
                (
                    "scoring_mode",
                    models.CharField(
                        choices=[("all_or_nothing", "全对得分"), ("partial", "按测试点得分")],
                        default="all_or_nothing",
                        max_length=20,
                        verbose_name="计分方式",
                    ),
                ),
                ("allowed_languages", models.JSONField(blank=True, default=list, verbose_name="允许的语言")),
                ("participant_count", models.PositiveIntegerField(default=0, verbose_name="参赛人数")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "community",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contests",
                        to="accounts.community",
                        verbose_name="所属社区",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_contests",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="创建人",
                    ),
                ),
            ],
            options={
                "verbose_name": "比赛",
                "verbose_name_plural": "比赛",
                "ordering": ["-start_time", "title"],
                "indexes": [
                    models.Index(fields=["community", "status"], name="contest_community_status_idx"),
                    models.Index(fields=["start_time"], name="contest_start_time_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Problem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("index", models.PositiveIntegerField(verbose_name="题号")),
                ("title", models.CharField(max_length=200, verbose_name="题目名称")),
                ("description", models.TextField(blank=True, default="", verbose_name="题目描述")),
                (
                    "difficulty",
                    models.CharField(
                        choices=[("easy", "简单"), ("medium", "中等"), ("hard", "困难")],
                        default="easy",
                        max_length=10,
                        verbose_name="难度",
                    ),
                ),
                ("points", models.PositiveIntegerField(default=100, verbose_name="分值")),
                ("time_limit_ms", models.PositiveIntegerField(default=2000, verbose_name="时间限制（毫秒）")),
                ("memory_limit_mb", models.PositiveIntegerField(default=256, verbose_name="内存限制（MB）")),
                ("sample_input", models.TextField(blank=True, default="", verbose_name="样例输入")),
                ("sample_output", models.TextField(blank=True, default="", verbose_name="样例输出")),
                ("test_cases", models.JSONField(blank=True, default=list, verbose_name="测试用例")),
                ("tags", models.JSONField(blank=True, default=list, verbose_name="标签")),
                (
                    "contest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="problems",
                        to="contests.contest",
                        verbose_name="所属比赛",
                    ),
                ),
            ],
            options={
                "verbose_name": "题目",
                "verbose_name_plural": "题目",
                "ordering": ["contest", "index"],
                "constraints": [
                    models.UniqueConstraint(fields=("contest", "index"), name="uniq_contest_problem_index"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ContestParticipant",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("registered_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="报名时间")),
                ("team_data", models.JSONField(blank=True, null=True, verbose_name="队伍信息")),
                ("score", models.FloatField(default=0, verbose_name="总分")),
                ("solved_problems", models.JSONField(blank=True, default=list, verbose_name="已解决题号")),
                ("is_disqualified", models.BooleanField(default=False, verbose_name="已取消资格")),
                (
                    "contest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="contests.contest",
                        verbose_name="比赛",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contest_participations",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="用户",
                    ),
                ),
            ],
            options={
                "verbose_name": "参赛者",
                "verbose_name_plural": "参赛者",
                "ordering": ["registered_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("contest", "user"), name="uniq_contest_participant"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Clarification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("problem_index", models.PositiveIntegerField(blank=True, null=True, verbose_name="题号")),
                ("question", models.TextField(verbose_name="问题")),
                ("answer", models.TextField(blank=True, default="", verbose_name="回复")),
                ("is_public", models.BooleanField(default=False, verbose_name="公开")),
                ("asked_at", models.DateTimeField(auto_now_add=True, verbose_name="提问时间")),
                ("answered_at", models.DateTimeField(blank=True, null=True, verbose_name="回复时间")),
                (
                    "contest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="clarifications",
                        to="contests.contest",
                        verbose_name="比赛",
                    ),
                ),
                (
                    "asked_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="clarifications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="提问人",
                    ),
                ),
                (
                    "answered_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="answered_clarifications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="回复人",
                    ),
                ),
            ],
            options={
                "verbose_name": "答疑",
                "verbose_name_plural": "答疑",
                "ordering": ["-asked_at", "-id"],
            },
        ),
    ]
