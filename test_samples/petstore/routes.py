from courier import Group, Router

from .auth import Authorization
from .operators.pets import (
    CreatePet,
    DeletePet,
    DownloadPhoto,
    GetPet,
    ListPets,
    UpdatePet,
    UploadPhoto,
)

RootRouter = Router(Group("/petstore"))
V1Router = Router(Group("/v1"))
PetsRouter = Router(Group("/pets"))


def register_pets(router):
    router.register(ListPets(), GetPet, CreatePet, UpdatePet, DeletePet)


RootRouter.register(V1Router)
V1Router.register(Authorization, PetsRouter)
PetsRouter.register(DownloadPhoto, UploadPhoto)
register_pets(PetsRouter)
