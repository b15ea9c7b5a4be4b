import os


def file_exists(file_path: str) -> bool:
    return os.path.exists(file_path)


def read_file(file_path: str) -> str:
    with open(file_path, "r", encoding="utf-8") as f:
        return f.read()


def get_files_by_extension(directory: str, ext: str) -> list:
    """Files directly inside directory ending with ext, sorted for stable output."""
    return [
        os.path.join(directory, name)
        for name in sorted(os.listdir(directory))
        if name.endswith(ext) and os.path.isfile(os.path.join(directory, name))
    ]
