import typing

UserId = typing.NewType("UserId", str)

PathId = typing.NewType("PathId", str)
ModuleId = typing.NewType("ModuleId", str)
LessonId = typing.NewType("LessonId", str)
QuestionId = typing.NewType("QuestionId", str)
OptionId = typing.NewType("OptionId", str)
CompositeLessonKey = typing.NewType("CompositeLessonKey", str)

BuildId = typing.NewType("BuildId", str)
PostId = typing.NewType("PostId", str)
CommentId = typing.NewType("CommentId", str)

IsoTimestamp = typing.NewType("IsoTimestamp", str)
