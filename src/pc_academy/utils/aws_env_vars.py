import os


def _get_resource_by_env_var(env_var: str) -> str:
    resource_name = os.environ.get(env_var)
    if not resource_name:
        raise ValueError(f"Missing environment variable: {env_var}")
    return resource_name


def get_aws_region() -> str:
    return _get_resource_by_env_var("AWS_REGION")


def get_user_progress_table_name() -> str:
    return _get_resource_by_env_var("USER_PROGRESS_TABLE_NAME")


def get_user_path_scores_table_name() -> str:
    return _get_resource_by_env_var("USER_PATH_SCORES_TABLE_NAME")


def get_leaderboard_table_name() -> str:
    return _get_resource_by_env_var("LEADERBOARD_TABLE_NAME")


def get_learning_paths_table_name() -> str:
    return _get_resource_by_env_var("LEARNING_PATHS_TABLE_NAME")


def get_community_builds_table_name() -> str:
    return _get_resource_by_env_var("COMMUNITY_BUILDS_TABLE_NAME")


def get_discussion_posts_table_name() -> str:
    return _get_resource_by_env_var("DISCUSSION_POSTS_TABLE_NAME")


def get_secrets_table_name() -> str:
    return _get_resource_by_env_var("SECRETS_TABLE_NAME")


def get_images_bucket_name() -> str:
    return _get_resource_by_env_var("IMAGES_BUCKET_NAME")


def get_throttle_table_name() -> str:
    return _get_resource_by_env_var("THROTTLE_TABLE_NAME")
